import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

from . import __version__
from .adjacency import mass_difference_summary
from .config import NetworkConfig
from .lcms_utils import SchemaConfig, coerce_features
from .network import build_network
from .structural import build_structural, rt_correction
from .transformations import default_transformations, transformations_from_frame, transformations_to_frame


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def _add_schema_args(p):
    p.add_argument("--id-col", type=str, default="Compound_ID")
    p.add_argument("--mz-col", type=str, default="MZ")
    p.add_argument("--rt-col", type=str, default="RT")


def _add_structural_parser(sub):
    p = sub.add_parser("structural", help="Structural network from transformation mass differences")
    p.add_argument("features", type=str, help="Feature table CSV (id, m/z, optional RT columns)")
    p.add_argument("--out", type=str, required=True, help="Output CSV for the edge list")
    p.add_argument("--transformations", type=str, default=None, help="Transformation catalog CSV (group, formula, mass, rt[, polarity])")
    p.add_argument("--ppm", type=float, default=5.0)
    p.add_argument("--directed", action="store_true")
    p.add_argument("--rt-correction", dest="rt_correction", action="store_true", help="Drop edges with RT shifts contradicting the transformation")
    p.add_argument("--summary", type=str, default=None, help="Optional CSV with per-transformation edge counts")
    _add_schema_args(p)
    return p


def _add_network_parser(sub):
    p = sub.add_parser("network", help="Structural + statistical network, combined")
    p.add_argument("features", type=str, help="Feature table CSV")
    p.add_argument("expr", type=str, help="Intensity matrix CSV (rows=samples, columns=feature ids; first column is the sample id)")
    p.add_argument("--out", type=str, required=True, help="Output CSV for the combined edge list")
    p.add_argument("--config", type=str, default=None, help="YAML/JSON NetworkConfig")
    p.add_argument("--transformations", type=str, default=None)
    return p


def _add_transformations_parser(sub):
    p = sub.add_parser("transformations", help="Export the built-in transformation catalog")
    p.add_argument("--out", type=str, required=True)
    return p


def _write_manifest(out: str, payload: dict) -> Path:
    out_path = Path(out)
    manifest = out_path.with_name(f"{out_path.stem}.run_manifest.json")
    payload = {"mass_net_version": __version__, **payload}
    manifest.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return manifest


def _load_catalog(path):
    if path is None:
        return default_transformations()
    return transformations_from_frame(pd.read_csv(path))


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    ap = argparse.ArgumentParser(prog="mass-net", description="Structural and statistical networks for LC-MS features")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)
    _add_structural_parser(sub)
    _add_network_parser(sub)
    _add_transformations_parser(sub)
    args = ap.parse_args(argv)
    setup_logging(args.verbose)

    if args.cmd == "structural":
        schema = SchemaConfig(id_col=args.id_col, mz_col=args.mz_col, rt_col=args.rt_col)
        features = coerce_features(pd.read_csv(args.features), schema)
        catalog = _load_catalog(args.transformations)
        am = build_structural(features, catalog, ppm=args.ppm, directed=args.directed)
        if args.rt_correction:
            am = rt_correction(am, features, catalog)
        edges = am.to_edge_list(upper_only=not am.directed)
        edges.to_csv(args.out, index=False)
        if args.summary:
            mass_difference_summary(am).to_csv(args.summary, index=False)
        _write_manifest(
            args.out,
            {
                "command": "structural",
                "n_features": len(features),
                "n_transformations": len(catalog),
                "n_edges": am.n_edges,
                "ppm": float(args.ppm),
                "directed": bool(args.directed),
                "rt_correction": bool(args.rt_correction),
            },
        )
        print(f"wrote {args.out} with {len(edges)} edges")
        return 0

    if args.cmd == "network":
        cfg = NetworkConfig.from_file(args.config)
        features = coerce_features(pd.read_csv(args.features), cfg.schema)
        expr = pd.read_csv(args.expr, index_col=0)
        catalog = _load_catalog(args.transformations)
        res = build_network(features, expr, catalog, cfg)
        edges = res.combined.to_edge_list(upper_only=not res.combined.directed)
        edges.to_csv(args.out, index=False)
        _write_manifest(
            args.out,
            {
                "command": "network",
                "n_features": len(features),
                "n_samples": int(expr.shape[0]),
                "n_edges": res.combined.n_edges,
                "n_structural_edges": (res.structural if res.structural_rt is None else res.structural_rt).n_edges,
                "n_statistical_edges": res.statistical_thresholded.n_edges,
                "config": cfg.to_dict(),
            },
        )
        print(f"wrote {args.out} with {len(edges)} combined edges")
        return 0

    if args.cmd == "transformations":
        catalog = default_transformations()
        transformations_to_frame(catalog).to_csv(args.out, index=False)
        _write_manifest(args.out, {"command": "transformations", "n_transformations": len(catalog)})
        print(f"wrote {args.out} with {len(catalog)} transformations")
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
