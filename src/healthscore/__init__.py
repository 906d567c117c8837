"""healthscore — sleep sessions, personal baselines and daily health scores.

Raw wearable samples go in; reconstructed sleep sessions, rolling baselines,
per-metric validity and four daily scores (recovery, sleep, strain, stress)
come out.
"""

__version__ = "0.1.0"
