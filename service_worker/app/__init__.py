"""
Worker Service package for the Fibonacci pipeline.

Structure:
- app.compute: Fibonacci algorithm(s).
- app.worker: Notification subscriber that computes and caches values.
- app.reconciler: Sweep for pending entries whose notification was lost.
- app.main: FastAPI app hosting the loops with health and metrics.
"""
