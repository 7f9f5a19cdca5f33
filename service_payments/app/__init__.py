"""
Payments Service package for the Professional Fees layer.

This package decides how much a medical professional is paid for a billing
event. It provides:

- app.main: API surface for payment evaluation, conflict audits and health.
- app.rules: Rule model, engine, scoring, calculation and explanations.
- app.repository: Read-only rule and reference-data sources.

Guidelines:
- The engine is stateless; callers supply the rule snapshot per call.
- Keep evaluation deterministic and observable (metrics + logs).
"""
