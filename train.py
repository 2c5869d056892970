from pathlib import Path

import numpy as np
from tqdm.auto import tqdm

from autograd import Scalar
from config import get_config
from dataloader import load_moons, make_moons, sample_batch
from modules import MLP
from optimizer import SGD, cosine_anneal_scheduler, hinge_loss, linear_decay_scheduler
from visualize import render_graph


def get_lr(config, t: int) -> float:
    if config["lr_schedule"] == "linear":
        return linear_decay_scheduler(t, config["lr_max"], config["lr_min"], config["num_steps"])
    if config["lr_schedule"] == "cosine":
        return float(cosine_anneal_scheduler(
            t, config["lr_max"], config["lr_min"], config["warmup_steps"], config["num_steps"]
        ))
    raise ValueError(f"Unknown lr_schedule {config['lr_schedule']!r}")


def get_dataset(config, rng: np.random.Generator):
    data_path = config["data_path"]
    if data_path is not None and Path(data_path).exists():
        print(f"Loading moons from {data_path}")
        return load_moons(data_path)
    print(f"Generating {config['n_samples']} moons samples")
    return make_moons(config["n_samples"], config["noise"], rng)


def train(config):
    """
    Trains an MLP on the moons dataset with full-graph backprop every step.
    Returns the model and a (loss, accuracy, lr) tuple per step.
    """
    rng = np.random.default_rng(config["seed"])
    data, labels = get_dataset(config, rng)
    model = MLP(config["layer_sizes"], rng=rng)
    optimizer = SGD(model.parameters(), lr=config["lr_max"])
    print(f"{model}, {len(model.parameters())} parameters")

    history = []
    step_iterator = tqdm(range(config["num_steps"]), desc="Training")
    for t in step_iterator:
        batch_data, batch_labels = sample_batch(data, labels, config["batch_size"], rng)
        total_loss, accuracy = hinge_loss(model, batch_data, batch_labels, config["alpha"])

        optimizer.zero_grad()
        total_loss.backward()

        optimizer.lr = get_lr(config, t)
        optimizer.step()

        history.append((total_loss.data, accuracy, optimizer.lr))
        step_iterator.set_postfix({
            "loss": f"{total_loss.data:.3f}",
            "accuracy": f"{accuracy * 100:.2f}%",
            "lr": f"{optimizer.lr:.3f}",
        })

    return model, history


def plot_ascii(model: MLP, bound: int) -> str:
    """
    Decision boundary over [-2, 2] x [-2, 2]: `+` where the score is positive, `0` elsewhere.
    """
    rows = []
    for y in range(-bound, bound):
        row = []
        for x in range(-bound, bound):
            score = model([Scalar(x / bound * 2.0), Scalar(-y / bound * 2.0)])[0]
            row.append("+" if score.data > 0 else "0")
        rows.append(" ".join(row))
    return "\n".join(rows)


if __name__ == "__main__":
    config = get_config()
    model, history = train(config)
    loss, accuracy, _ = history[-1]
    print(f"Final loss {loss:.3f}, accuracy {accuracy * 100:.2f}%")
    print(plot_ascii(model, config["plot_bound"]))

    if config["graph_path"] is not None:
        render_graph(model([Scalar(0.), Scalar(0.)]), config["graph_path"])
