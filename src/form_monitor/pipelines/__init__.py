"""
Analysis core of the live form monitor.

Turns one detected pose into a single feedback verdict:
    Stage 1: Geometric feature extraction (joint angles, symmetry, offsets)
    Stage 2: Exercise recognition (ordered heuristic rules)
    Stage 3: Form rule evaluation (ordered, exercise-specific rules)
"""
