"""mangamotion — timeline playback and capture for animated manga panels.

Turns panels, keyframed clips and story beats into a composited
1280x720 frame stream, played live on a virtual clock and optionally
captured to a WebM file that ends exactly when the timeline does.
"""
