"""
Rules engine package.

Defines the payment rule model and the evaluation pipeline used by the
Payments Service: context normalization, criterion evaluation,
applicability filtering, specificity scoring, conflict resolution,
payment calculation and explanations, plus the offline conflict auditor.

Modules of interest:
- models: Data classes for rules, payment models, contexts and results.
- engine: PaymentRuleEngine facade (evaluate / audit_conflicts).
- records: Validation of persisted rule records into rules.
"""
