"""
Normalization configuration - missing-value markers, category weights, ACS variables.
"""

# Strings upstreams use for "no value" (BEA suppression codes, FRED's ".",
# BLS's "-")
MISSING_MARKERS: frozenset[str] = frozenset(
    {"", ".", "-", "(NA)", "(D)", "(NM)", "(L)", "(S)", "(X)", "N/A", "NA", "null"}
)

# Census ACS uses large negative sentinels for suppressed estimates
CENSUS_NULL_SENTINELS: frozenset[float] = frozenset(
    {-111111111.0, -222222222.0, -333333333.0, -555555555.0, -666666666.0,
     -888888888.0, -999999999.0}
)

# Foursquare category id -> (name, weight)
CATEGORY_WEIGHTS: dict[str, tuple[str, float]] = {
    "17069": ("Grocery Store", 2.0),
    "13032": ("Coffee Shop", 1.5),
    "13000": ("Restaurant", 1.0),
    "13003": ("Bar", 0.8),
    "18021": ("Gym / Fitness Center", 1.5),
    "16032": ("Park", 1.2),
    "17014": ("Pharmacy", 1.2),
    "19046": ("Transit Station", 1.3),
}

DEFAULT_CATEGORY_WEIGHT = 0.5

DEFAULT_CATEGORIES = ",".join(CATEGORY_WEIGHTS)

# Places kept in an amenity profile for display
MAX_PLACES = 50

# ACS 5-year variables used for demographic profiles
ACS_VARIABLES: dict[str, str] = {
    "total_population": "B01003_001E",
    "median_age": "B01002_001E",
    "male_population": "B01001_002E",
    "female_population": "B01001_026E",
    "bachelor_degree_or_higher": "B15003_022E",
    "median_household_income": "B19013_001E",
    "per_capita_income": "B19301_001E",
    "labor_force": "B23025_002E",
    "unemployed": "B23025_005E",
    "median_home_value": "B25077_001E",
    "median_gross_rent": "B25064_001E",
    "owner_occupied_units": "B25003_002E",
    "renter_occupied_units": "B25003_003E",
    "total_housing_units": "B25001_001E",
    "median_commute_time": "B08013_001E",
}

# FBI offense slug -> field name in estimate payloads
FBI_OFFENSE_FIELDS: dict[str, str] = {
    "violent-crime": "violent_crime",
    "property-crime": "property_crime",
    "homicide": "homicide",
    "rape": "rape_revised",
    "robbery": "robbery",
    "aggravated-assault": "aggravated_assault",
    "burglary": "burglary",
    "larceny": "larceny",
    "motor-vehicle-theft": "motor_vehicle_theft",
    "arson": "arson",
}

# HUD USPS measure -> (address count field, label)
HUD_MEASURES: dict[str, tuple[str, str]] = {
    "vacancy_rate": ("vacant", "USPS Vacancy Rate"),
    "occupancy_rate": ("occupied", "USPS Occupancy Rate"),
}

# Quarters of USPS history kept by default
HUD_LOOKBACK_QUARTERS = 8
