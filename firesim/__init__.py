"""
FireSim - Bushfire Scenario Image Generation

Turns a trainer-drawn fire perimeter, weather and fire-behaviour inputs and a
set of camera viewpoints into a consistent set of photorealistic images,
generated as a tracked background job.
"""

from pathlib import Path

from firesim.core.constants import VERSION

__version__ = VERSION
__project__ = "FireSim"

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
