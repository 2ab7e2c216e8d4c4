"""Video delivery: the playback gate and the Bunny.net Stream adapter."""
