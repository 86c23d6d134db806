"""Game balance constants."""

# Sect relationships: a hostile pair at or above this intensity declares war.
WAR_DECLARATION_THRESHOLD = 100

# Cultivation: experience needed for the next level is level * EXP_PER_LEVEL.
EXP_PER_LEVEL = 100

# Clock units
TICKS_PER_HOUR = 60
HOURS_PER_DAY = 24
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12

# Default number of ticks a world update advances the clock by (one hour).
TICKS_PER_TURN = 60
