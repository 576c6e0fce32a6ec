# Domain services; each module exposes a class and a module-level singleton
