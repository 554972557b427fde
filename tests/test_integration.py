"""Integration tests for the file-level workflows and the CLI."""

import json
import os

import pytest


class TestCorrespondencePipeline:
    """Integration tests that run the correspondence workflow on files."""

    def test_pipeline_writes_outputs(self, temp_dir, scene_files):
        """Test that the table, substitutes and report are written."""
        from primreg.io.primitives_io import read_primitives
        from primreg.io.save_artifacts import read_correspondences
        from primreg.pipeline import run_correspondence

        out_dir = os.path.join(temp_dir, "output")

        result = run_correspondence(
            scene_files["prims_a"], scene_files["assoc_a"],
            scene_files["prims_b"], scene_files["assoc_b"],
            scene_files["cloud"], out_dir,
        )

        assert result.as_mapping() == {(0, 0): (7, 0), (1, 0): (5, 0)}
        assert sorted(read_correspondences(os.path.join(out_dir, "corresp.csv"))) == [
            ((0, 0), (7, 0)), ((1, 0), (5, 0)),
        ]

        subs = read_primitives(os.path.join(out_dir, "subs.csv"))
        assert sorted(subs) == [0, 1]
        assert subs[0][0].position == pytest.approx((0.55, 0.0, 0.0))

        with open(os.path.join(out_dir, "match_report.json"), encoding="utf-8") as f:
            report = json.load(f)
        assert report["num_matched"] == 2
        assert report["num_points"] == 18
        assert all(pair["shared_points"] == 9 for pair in report["pairs"])
        assert all(pair["significance_a"] > 0 for pair in report["pairs"])

    def test_pipeline_header_names_inputs(self, temp_dir, scene_files):
        """Test that the table header names both primitive sources."""
        from primreg.pipeline import run_correspondence

        out_dir = os.path.join(temp_dir, "output")
        run_correspondence(
            scene_files["prims_a"], scene_files["assoc_a"],
            scene_files["prims_b"], scene_files["assoc_b"],
            scene_files["cloud"], out_dir,
        )

        with open(os.path.join(out_dir, "corresp.csv"), encoding="utf-8") as f:
            header = f.readlines()[:2]
        assert header[1].strip() == f"# {scene_files['prims_a']},{scene_files['prims_b']}"

    def test_missing_input_refused(self, temp_dir, scene_files):
        """Test that the workflow refuses to run without all inputs."""
        from primreg.errors import InputValidationError
        from primreg.pipeline import run_correspondence

        with pytest.raises(InputValidationError) as exc_info:
            run_correspondence(
                scene_files["prims_a"], scene_files["assoc_a"],
                os.path.join(temp_dir, "missing.csv"), scene_files["assoc_b"],
                scene_files["cloud"], os.path.join(temp_dir, "output"),
            )

        assert len(exc_info.value.errors) == 1
        assert "prims_pathB" in exc_info.value.errors[0]

    def test_segment_cost_from_config(self, temp_dir, scene_files, default_config):
        """Test that the configured cost function is used."""
        from primreg.pipeline import run_correspondence

        default_config.matching.cost = "segment"
        result = run_correspondence(
            scene_files["prims_a"], scene_files["assoc_a"],
            scene_files["prims_b"], scene_files["assoc_b"],
            scene_files["cloud"], os.path.join(temp_dir, "output"),
            config=default_config,
        )

        assert result.as_mapping() == {(0, 0): (7, 0), (1, 0): (5, 0)}

    def test_segment_cost_uses_extent_threshold(self, default_config):
        """Test that extent.threshold and extent.max_attempts drive the segment cost."""
        from primreg.models import LinePrimitive, PointSample
        from primreg.pipeline import select_cost_function

        prim_a = LinePrimitive(position=[0, 0, 0], direction=[1, 0, 0], gid=0)
        prim_b = LinePrimitive(position=[10, 0, 0], direction=[1, 0, 0], gid=3)
        points = [PointSample(coords=[x, 0.3, 0], alt_gid=0, gid=3) for x in (2.0, 4.0)]

        default_config.matching.cost = "segment"
        default_config.extent.max_attempts = 1

        # 0.01 finds no inliers in one attempt: both sides fall back to unit segments 10 apart
        narrow = select_cost_function(default_config, points)(prim_a, prim_b)

        default_config.extent.threshold = 0.5
        wide = select_cost_function(default_config, points)(prim_a, prim_b)

        assert narrow == pytest.approx(10.0)
        assert wide == pytest.approx(0.0, abs=1e-9)

    def test_unknown_cost_rejected(self, temp_dir, scene_files, default_config):
        """Test that an unknown cost name is an error."""
        from primreg.pipeline import run_correspondence

        default_config.matching.cost = "hausdorff"
        with pytest.raises(ValueError):
            run_correspondence(
                scene_files["prims_a"], scene_files["assoc_a"],
                scene_files["prims_b"], scene_files["assoc_b"],
                scene_files["cloud"], os.path.join(temp_dir, "output"),
                config=default_config,
            )


class TestCandidatePipeline:
    """Integration tests for candidate generation on files."""

    def test_candidates_written(self, temp_dir, scene_files):
        """Test that candidates are generated and saved with UNSET status."""
        from primreg.io.primitives_io import read_primitives
        from primreg.models import PrimitiveStatus
        from primreg.pipeline import run_candidates

        out_path = os.path.join(temp_dir, "candidates.csv")
        candidates = run_candidates(scene_files["prims_a"], out_path)

        loaded = read_primitives(out_path)
        assert sorted(loaded) == sorted(candidates) == [0, 1]
        assert all(p.status == PrimitiveStatus.UNSET for group in loaded.values() for p in group)


class TestCli:
    """Tests for the command-line entry point."""

    def test_corresp_command(self, temp_dir, scene_files, capsys):
        """Test the corresp subcommand end to end."""
        from primreg.cli import main

        out_dir = os.path.join(temp_dir, "cli_out")
        code = main([
            "corresp",
            scene_files["prims_a"], scene_files["assoc_a"],
            scene_files["prims_b"], scene_files["assoc_b"],
            scene_files["cloud"], "--out", out_dir,
        ])

        assert code == 0
        assert os.path.exists(os.path.join(out_dir, "corresp.csv"))
        assert "Matched pairs: 2" in capsys.readouterr().out

    def test_corresp_missing_input_fails(self, temp_dir, scene_files, capsys):
        """Test that the CLI exits with 1 when an input is absent."""
        from primreg.cli import main

        code = main([
            "corresp",
            scene_files["prims_a"], scene_files["assoc_a"],
            scene_files["prims_b"], scene_files["assoc_b"],
            os.path.join(temp_dir, "no_cloud.ply"), "--out", temp_dir,
        ])

        assert code == 1
        assert "cloud_path" in capsys.readouterr().err

    def test_candidates_command(self, temp_dir, scene_files):
        """Test the candidates subcommand."""
        from primreg.cli import main

        out_path = os.path.join(temp_dir, "cands.csv")
        code = main(["candidates", scene_files["prims_a"], "--out", out_path, "--angle-step", "45"])

        assert code == 0
        assert os.path.exists(out_path)

    def test_init_config_command(self, temp_dir):
        """Test that init-config writes a loadable file."""
        from primreg.cli import main
        from primreg.config import load_config

        path = os.path.join(temp_dir, "config.yaml")
        assert main(["init-config", "--out", path]) == 0

        config = load_config(path)
        assert config.extent.max_attempts == 10
