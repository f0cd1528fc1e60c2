#!/usr/bin/env python3
"""
Compositor Bridge Runner.

Convenience script to run the bridge from a checkout.

Usage:
    python run_bridge.py

Or run as module:
    python -m compositor_bridge
"""

import sys
import os

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'python'))

if __name__ == "__main__":
    from compositor_bridge.__main__ import main
    import asyncio
    asyncio.run(main())
