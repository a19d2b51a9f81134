"""Price monitoring and alert dispatch engine."""
