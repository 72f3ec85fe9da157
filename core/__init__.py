# Core package: configuration, logging, security and shared helpers
