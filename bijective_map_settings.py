from pathlib import Path

from persistent_singleton import persistent_singleton, PersistenceSource


@persistent_singleton(PersistenceSource.JSON, Path("store/bijective_map_settings.json"))
class Settings:
    # Log every successful mutation at DEBUG
    debug: bool = False

    # Walk both dictionaries after every mutation to make sure they still agree (O(n) per mutation)
    check_invariants: bool = False
