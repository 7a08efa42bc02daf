"""Configuration from environment variables."""

import os

# Polling interval for instance/image state machines
POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "5"))

# Post-launch tagging retry policy
TAG_RETRY_ATTEMPTS = int(os.environ.get("TAG_RETRY_ATTEMPTS", "10"))
TAG_RETRY_INTERVAL_SECONDS = float(os.environ.get("TAG_RETRY_INTERVAL_SECONDS", "5"))

# Stopped instances older than this are reclaimed by the cleanup job
INSTANCE_MAX_AGE_MINUTES = int(os.environ.get("INSTANCE_MAX_AGE_MINUTES", "120"))

# Repeated termination signals inside this window are ignored
SHUTDOWN_GRACE_SECONDS = float(os.environ.get("SHUTDOWN_GRACE_SECONDS", "5"))

# Record defaults applied at validation time
DEFAULT_INSTANCE_TYPE = "t2.nano"
DEFAULT_RETENTION_COUNT = 7

# Marker tag carried by every instance and image this engine creates
MANAGED_BY_TAG_KEY = "__Maintained_By__"
MANAGED_BY_TAG_VALUE = "AutoRefreshAmi"

# EC2 states the engine waits for
INSTANCE_STOPPED = "stopped"
IMAGE_AVAILABLE = "available"

# AMI names reject ':' so the timestamp avoids it
IMAGE_TIMESTAMP_FORMAT = "%d %b %y %Hh%Mm%Ss %Z"
