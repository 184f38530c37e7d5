"""
Workshop modules: inventory, budgets and service orders.

Each module owns its ORM tables (where the kernel does not), its
read-side DTOs and a service class that is the only public entry point for
its operations.  Module services own the transaction boundary; kernel
services they call only flush.
"""
