"""
Schema model package.

Turns schema-tagged key/value payloads into typed content variants and
back. The variant set is closed: unknown tags decode to an explicit
``UnknownContent`` rather than failing.

Modules of interest:
- models: SchemaType, the frozen content variants and their builders.
- decoder: One decode/encode function per schema tag.
"""
