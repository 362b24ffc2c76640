# Numerical safety constants and fixed layout of the antecedent NPP model.

MONTHS = 12                # months per lag year
TAU_MIN = 1e-12            # precision guard when converting tau to a scale
SCALE_MIN = 1e-12          # smallest usable covariate scale before falling back to 1
SIMPLEX_ATOL = 1e-8        # tolerance when checking that block weights sum to one

# Event-size precipitation buckets, in the column order of the observation table.
EVENT_COLUMNS = ("ppt_lt5", "ppt_5_15", "ppt_15_30", "ppt_gt30")
MONTH_COLUMNS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)

# Quantiles reported for every summarised parameter element.
SUMMARY_QUANTILES = (0.025, 0.5, 0.975)
