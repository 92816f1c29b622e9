# dealscout/core/__init__.py
