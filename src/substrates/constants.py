# substrates/constants.py
# Lengths in nm (GROMACS units), angles in degrees.
EPS = 1e-6
SEAM_TOL = 0.5          # max seam mismatch, in units of the row period
ROUGHNESS_CLIP = 3.0    # roughness draws are clipped to ±ROUGHNESS_CLIP*std_z
ANGSTROM_PER_NM = 10.0

AXES = ("x", "y", "z")
CAPS = ("none", "top", "bottom", "both")
TRIM_POLICIES = ("any_atom", "centroid")

# Presets for the default database
GRAPHENE_BOND = 0.142
SILICA_SPACING = 0.450
SILICA_DZ = 0.151
