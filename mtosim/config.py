# Make-to-Order Shop Floor — Simulation Settings
# All engine time units are MILLISECONDS of simulated time; operation durations,
# due-date offsets and lead times are quoted in MINUTES.

# ── Tick ──────────────────────────────────────────────────────────────────────
TICK_MS        = 1_000          # one tick = one simulated second at 1× speed
MS_PER_MINUTE  = 60 * 1_000
GAME_SPEEDS    = (1, 2, 4, 8)

# ── Shop metadata ─────────────────────────────────────────────────────────────
SHOP_NAME = "Make2Manage Job Shop"

# ── Departments ───────────────────────────────────────────────────────────────
# standard_min : standard processing time per order (minutes)
# operations   : (id, name, duration_min, description), executed in order
DEPARTMENTS = {
    1: {
        "name":         "Cutting & Prep",
        "standard_min": 15,
        "operations": [
            ("cut-1",  "Material Cutting",    8, "Cut raw materials to specifications"),
            ("prep-1", "Surface Preparation", 7, "Clean and prepare surfaces for assembly"),
        ],
    },
    2: {
        "name":         "Assembly",
        "standard_min": 25,
        "operations": [
            ("asm-1", "Component Assembly", 25, "Assemble components according to specifications"),
        ],
    },
    3: {
        "name":         "Quality Control",
        "standard_min": 12,
        "operations": [
            ("qc-1", "Initial Inspection", 7, "Visual and dimensional inspection"),
            ("qc-2", "Function Testing",   5, "Test product functionality and performance"),
        ],
    },
    4: {
        "name":         "Packaging & Ship",
        "standard_min": 8,
        "operations": [
            ("pack-1", "Final Packaging", 8, "Package product for shipment"),
        ],
    },
}

# Ranges drawn once per department at initialisation
DEPARTMENT_TUNABLES = {
    "capacity":            (80, 120),
    "efficiency":          (0.8, 1.2),
    "equipment_condition": (0.95, 1.0),
}

# ── Department state thresholds ───────────────────────────────────────────────
UTILIZATION_PER_ORDER = 25      # each queued / in-process order adds 25 %
OVERLOADED_ABOVE      = 85
BUSY_ABOVE            = 50

# ── Order arrival ─────────────────────────────────────────────────────────────
# Probability of a new order per tick
ARRIVAL_PROBABILITY = {
    "low":    0.002,    # ≈ 7 orders / hour
    "medium": 0.003,    # ≈ 11 orders / hour
    "high":   0.005,    # ≈ 18 orders / hour
}

DUE_MIN_NEW     = (90, 240)     # generated during play
DUE_MIN_INITIAL = (60, 180)     # pending at session start
DUE_MIN_WIP     = (30, 120)     # already on the floor at session start
WIP_AGE_MIN     = (10, 60)
WIP_REMAINING_MIN = (5, 30)

INITIAL_PENDING = {
    "beginner":     (3, 6),
    "intermediate": (5, 10),
    "advanced":     (8, 15),
}
INITIAL_WIP = {
    "beginner":     (2, 4),
    "intermediate": (4, 8),
    "advanced":     (6, 12),
}

# ── Routing ───────────────────────────────────────────────────────────────────
# Route length is floor(U(lo, hi)), so the upper bound is never reached
ROUTE_LENGTH = {
    "beginner":     (2, 4),
    "intermediate": (3, 6),
    "advanced":     (4, 8),
}
DEFAULT_ROUTE_LENGTH = 4
REPEAT_REJECT_PROBABILITY = 0.9     # rework loops survive 10 % of the time

PROCESS_FLOWS = {
    "beginner": [
        ["prep", "assembly", "quality"],
        ["cutting", "assembly", "packaging"],
        ["prep", "quality", "packaging"],
    ],
    "intermediate": [
        ["cutting", "prep", "assembly", "quality", "packaging"],
        ["prep", "cutting", "assembly", "assembly", "quality"],
        ["cutting", "assembly", "quality", "assembly", "packaging"],
        ["prep", "assembly", "quality", "packaging", "quality"],
    ],
    "advanced": [
        ["cutting", "prep", "assembly", "quality", "assembly", "quality", "packaging"],
        ["prep", "cutting", "assembly", "assembly", "quality", "assembly", "packaging"],
        ["cutting", "prep", "assembly", "quality", "assembly", "quality", "assembly", "packaging"],
        ["prep", "cutting", "assembly", "quality", "prep", "assembly", "quality", "packaging"],
    ],
}
DEFAULT_PROCESS_FLOW = ["cutting", "assembly", "quality", "packaging"]

COST_PER_MINUTE = 2.5

# Per-order chance that the optimizer applies each pass
ROUTING_PASS_PROBABILITY = {
    "speed":       0.3,
    "cost":        0.3,
    "reliability": 0.3,
    "bottleneck":  0.4,
}

BOTTLENECK_TRIGGER_ABOVE = 80
BOTTLENECK_TARGET_BELOW  = 70
PRIORITY_WEIGHTS         = (0.4, 0.4, 0.2)   # reliability, free capacity, 100 / cost
PRIORITY_IMPROVEMENT     = 1.1

# Processing-time complexity factor by route length
COMPLEX_ROUTE_ABOVE  = 5
SIMPLE_ROUTE_BELOW   = 3
COMPLEX_ROUTE_FACTOR = 1.2
SIMPLE_ROUTE_FACTOR  = 0.8

# ── SLA ───────────────────────────────────────────────────────────────────────
AT_RISK_PROGRESS = 0.8

# ── Random events (probability per tick) ──────────────────────────────────────
RANDOM_EVENTS = {
    "equipment-failure": 0.001,
    "rush-order":        0.0005,
    "delivery-delay":    0.0002,
    "efficiency-boost":  0.0003,
}
FAILURE_RATE_FACTOR = 0.5
BOOST_RATE_FACTOR   = 1.25
MODIFIER_DURATION_MIN = 5

EVENT_LOG_SIZE = 50

# ── Customers ─────────────────────────────────────────────────────────────────
CUSTOMERS = [
    ("CUST-001", "Apex Industrial",        "vip"),
    ("CUST-002", "Northwind Fabrication",  "premium"),
    ("CUST-003", "Riverside Components",   "standard"),
    ("CUST-004", "Summit Machinery",       "standard"),
    ("CUST-005", "Harbor Equipment Co.",   "premium"),
    ("CUST-006", "Lakeside Assemblies",    "standard"),
    ("CUST-007", "Crown Precision",        "vip"),
    ("CUST-008", "Meridian Tooling",       "standard"),
]

TIER_VALUE_MULTIPLIER = {"standard": 1.0, "premium": 1.3, "vip": 1.5}
VALUE_PER_STEP        = 150
RUSH_CHANCE_PCT       = {"standard": 5, "premium": 5, "vip": 15}

# ── Capacity planning ─────────────────────────────────────────────────────────
DEFAULT_CAPACITY_SLOTS = 5
OPTIMAL_LOAD_FRACTION  = 0.8
REBALANCE_SOURCE_ABOVE = 85
REBALANCE_TARGET_BELOW = 50
REBALANCE_ORDERS_PER_SOURCE = 2

# ── Settings defaults ─────────────────────────────────────────────────────────
DEFAULT_SETTINGS = {
    "session_duration":        30,
    "order_generation_rate":   "medium",
    "complexity_level":        "intermediate",
    "random_seed":             None,
    "game_speed":              1,
    "enable_events":           True,
    "enable_advanced_routing": True,
}

# ── Quick-start scenarios ─────────────────────────────────────────────────────
SCENARIOS = {
    "tutorial": {
        "label":       "Tutorial Mode",
        "description": "Slow pace, few orders, no disruptions",
        "settings": {
            "session_duration":      15,
            "game_speed":            1,
            "order_generation_rate": "low",
            "complexity_level":      "beginner",
            "enable_events":         False,
            "random_seed":           "tutorial-seed",
        },
    },
    "balanced": {
        "label":       "Balanced Production",
        "description": "Moderate complexity with random events",
        "settings": {
            "session_duration":      30,
            "game_speed":            1,
            "order_generation_rate": "medium",
            "complexity_level":      "intermediate",
            "enable_events":         True,
            "random_seed":           "balanced-seed",
        },
    },
    "rush_mode": {
        "label":       "Rush Mode",
        "description": "High volume, long routes, tight deadlines",
        "settings": {
            "session_duration":      15,
            "game_speed":            2,
            "order_generation_rate": "high",
            "complexity_level":      "advanced",
            "enable_events":         True,
            "random_seed":           "rush-seed",
        },
    },
    "expert": {
        "label":       "Expert Challenge",
        "description": "Full-length advanced session at 4× speed",
        "settings": {
            "session_duration":      30,
            "game_speed":            4,
            "order_generation_rate": "high",
            "complexity_level":      "advanced",
            "enable_events":         True,
            "random_seed":           "expert-seed",
        },
    },
}
