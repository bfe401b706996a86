"""
Rules package.

Defines the rule model, the wire-format parser and the condition
evaluator used to decide whether proposition content qualifies for
display. Evaluation is deterministic and side-effect free: children are
visited in declared order and anything that cannot be evaluated fails
closed with a diagnostic.

Modules of interest:
- models: Conditions, consequences, rules and evaluation results.
- parser: Rules document parsing; malformed nodes are kept, not raised.
- engine: ConditionEvaluator with typed matcher operators and group logic.
"""
