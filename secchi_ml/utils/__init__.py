"""
Utility package setup.

Enables pandas Copy-on-Write globally so splits and derived frames never
mutate the caller's dataset in place.
"""

import pandas as pd

pd.options.mode.copy_on_write = True
