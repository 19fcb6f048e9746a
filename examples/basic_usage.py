"""
Basic usage example for fitpipe.

This example demonstrates:
1. Downloading the housing dataset
2. Declaring a typed reader schema
3. Appending an SDCA trainer to the pipeline
4. Fitting, inspecting the learned weights and evaluating
"""

from fitpipe import ColumnSpec, RegressionContext, TextReader
from fitpipe.datasets import download_housing_dataset


def main():
    data_file = download_housing_dataset()

    ctx = RegressionContext(seed=0)

    # label at field 0, six float features at fields 1..6
    reader = TextReader(
        [ColumnSpec("label", "float", 0), ColumnSpec("features", "float", 1, 6)],
        separator="\t",
        has_header=True,
    )

    # Read the data, and leave 10% out for testing
    data = reader.read(data_file)
    train, test = ctx.train_test_split(data, test_fraction=0.1)

    pipeline = reader.make_new_estimator().append(
        lambda r: {
            "label": r.label,
            "score": ctx.trainers.sdca(r.label, r.features, l1_threshold=0.0, max_iterations=100),
        }
    )

    result = pipeline.fit(train)

    weights = result.predictor("score").feature_weights()
    print(f"weight 0 - {weights[0]}")
    print(f"weight 1 - {weights[1]}")

    scored = result.model.transform(test)
    print(ctx.evaluate(scored, "label", "score"))


if __name__ == "__main__":
    main()
