"""
Run the answer-profile pipeline on a survey CSV.

Run:
  python -u main.py --data data/survey.csv --schema data/schema.json

Optional:
  python -u main.py --data data/survey.csv --schema data/schema.json --k 3 --n_jobs -1 --plots
"""

import os
import sys
import argparse
import logging

from covid_survey_clustering.config import PipelineConfig
from covid_survey_clustering.data_loader import SurveyDataLoader, load_schema
from covid_survey_clustering.errors import SequenceClusteringError
from covid_survey_clustering.pipeline import SequenceClusteringPipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Survey answer profiles by sequence analysis")
    parser.add_argument("--data", required=True, help="survey table (CSV)")
    parser.add_argument("--schema", required=True, help="feature schema (JSON)")
    parser.add_argument("--config", default=None, help="pipeline configuration (JSON)")
    parser.add_argument("--id_col", default=None, help="subject id column")
    parser.add_argument("--sep", default=",")
    parser.add_argument("--k", type=int, default=None, help="number of profiles")
    parser.add_argument("--indel", type=float, default=None, help="indel cost")
    parser.add_argument("--n_jobs", type=int, default=None)
    parser.add_argument("--out_dir", default="results")
    parser.add_argument("--plots", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    settings = PipelineConfig.from_json(args.config).to_dict() if args.config else {}
    if args.k is not None:
        settings["n_clusters"] = args.k
    if args.indel is not None:
        settings["indel_cost"] = args.indel
    if args.n_jobs is not None:
        settings["n_jobs"] = args.n_jobs
    return PipelineConfig.from_dict(settings)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        schema = load_schema(args.schema)
        df = SurveyDataLoader.from_csv(args.data, id_col=args.id_col, sep=args.sep)
        df = SurveyDataLoader.coerce_numeric(df, schema)

        pipeline = SequenceClusteringPipeline(schema, config)
        pipeline.fit(df)
    except SequenceClusteringError as exc:
        print(f"Pipeline failed: {exc}", file=sys.stderr)
        return 1

    os.makedirs(args.out_dir, exist_ok=True)
    for name, table in pipeline.get_artifact_tables().items():
        table.to_csv(os.path.join(args.out_dir, f"{name}.csv"),
                     index=name not in ("assignments", "dendrogram"))
    pipeline.get_associations().to_csv(os.path.join(args.out_dir, "associations.csv"), index=False)
    pipeline.evaluate_cluster_range().to_csv(os.path.join(args.out_dir, "cluster_range.csv"), index=False)

    print("\nProfile summary:")
    print(pipeline.get_cluster_summary().to_string(index=False))
    print(f"\nArtifacts saved in {args.out_dir}/")

    if args.plots:
        from covid_survey_clustering.visualization import save_all_plots
        save_all_plots(pipeline, output_dir=os.path.join(args.out_dir, "plots"))
        print(f"Plots saved in {args.out_dir}/plots/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
