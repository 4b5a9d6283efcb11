"""
lumber_modules -- declarative business state machines.

Layer: **Modules**.  Workflow definitions consumed by ``lumber_services``.
Imports from ``lumber_kernel`` only; never imported by the kernel or the
engines.
"""
