"""
stagreel - animated SVG to GIF rendering

Modules:
- timing/     SMIL timing analysis (duration, aspect ratio)
- planner/    frame sample planning
- capture/    headless browser frame capture
- encoder/    GIF assembly
- pipeline/   end-to-end render of one document
- jobs/       asynchronous job orchestration and progress broadcast
- api/        FastAPI endpoints
"""

__version__ = "0.1.0"
