"""withinhost-timing: Timing of peak pathogen load relative to symptom onset.

A small set of within-host ODE models coupling:
  - Pathogen load P (replication, immune killing or inhibition)
  - Immune effector X (baseline production, decay, pathogen-driven activation)
  - Three model variants: unmodified kill, carrying capacity, saturating
  - Peak / symptom-onset extraction and the signed delay between them
  - Replication-rate sweeps feeding the pre- vs post-symptomatic figures
"""

__version__ = "0.1.0"
