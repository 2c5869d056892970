def get_config():
    return {
        "layer_sizes": [2, 16, 16, 1],
        "alpha": 1e-3,  # L2 regularisation strength
        "num_steps": 100,
        "lr_schedule": "linear",  # "linear" or "cosine"
        "lr_max": 1.0,
        "lr_min": 0.1,
        "warmup_steps": 0,
        "batch_size": None,  # None trains on the full dataset every step
        "data_path": "make_moons.csv",
        "n_samples": 100,
        "noise": 0.1,
        "seed": 1337,
        "graph_path": None,  # e.g. "moon_graph" to render the output graph as png
        "plot_bound": 20,
    }
