"""Default configuration values for PlanMeter.

Configuration is organized into groups, one per engine concern.
"""

DEFAULT_CONFIG = {
    # --- Measurement ---
    "measurement": {
        "default_color": "blue",  # blue, red, green, orange, purple
        "default_unit": "m",  # mm, cm, m, in, ft
    },
    # --- Storage ---
    "storage": {
        "backend": "memory",  # memory, json
        "data_dir": "",  # empty = per-user data directory
    },
    # --- Logging ---
    "logging": {
        "log_level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
        "log_to_file": True,
        "log_retention_days": 30,
        "log_max_size_mb": 50,
        "log_console_output": True,
    },
}
