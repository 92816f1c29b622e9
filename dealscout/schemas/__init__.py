# dealscout/schemas/__init__.py
