import matplotlib

# Plot tests write files only; no display is available.
matplotlib.use("Agg")
