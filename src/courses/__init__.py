"""Course catalog: courses with their ordered modules and lessons."""
