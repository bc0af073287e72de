# ABOUTME: linkdump - markdown link dumps into a progressively enriched link database
# ABOUTME: Layers: extraction → core (merge, service) → pipeline → persistence

__version__ = "0.1.0"
