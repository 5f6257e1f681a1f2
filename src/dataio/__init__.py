"""In-memory outbreak datasets."""
from .outbreaks import OutbreakData, load_boarding_school_flu
