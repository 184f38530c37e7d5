"""
Workshop services layer: reservation coordination, identity and the API
facade.  Submodules are imported explicitly (``workshop_services.api``)
so that module services can depend on the coordinator without pulling in
the facade.
"""
