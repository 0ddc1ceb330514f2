import sys

import cv2
import pytest

from hemocount import cli


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["hemocount", *argv])
    cli.main()


def test_parser_defaults():
    args = cli.build_argparser().parse_args([])
    assert args.squares == [0, 2, 6, 8]
    assert args.dilution == 1.0
    assert cli._resolve_ppm(args) is None


def test_ppm_from_square_width():
    args = cli.build_argparser().parse_args(["--square_px", "1500"])
    assert cli._resolve_ppm(args) == pytest.approx(1.5)
    args = cli.build_argparser().parse_args(["--square_px", "1500", "--px_per_micron", "2"])
    assert cli._resolve_ppm(args) == 2.0


def test_single_image_report(monkeypatch, capsys, tmp_path, two_cell_slide):
    path = tmp_path / "slide.png"
    cv2.imwrite(str(path), two_cell_slide)
    out_dir = tmp_path / "debug"

    run_cli(monkeypatch, "--image", str(path), "--no_grid", "--no_equalize", "--save_dir", str(out_dir))

    out = capsys.readouterr().out
    assert "slide.png" in out
    assert "viability" in out
    assert (out_dir / "slide_09_detections.png").exists()


def test_directory_mode(monkeypatch, capsys, tmp_path, two_cell_slide):
    for name in ("a.png", "b.jpg"):
        cv2.imwrite(str(tmp_path / name), two_cell_slide)
    (tmp_path / "notes.txt").write_text("not an image")

    run_cli(monkeypatch, "--dir", str(tmp_path), "--no_grid")

    out = capsys.readouterr().out
    assert "a.png" in out and "b.jpg" in out
    assert "notes.txt" not in out


def test_requires_an_input(monkeypatch):
    with pytest.raises(SystemExit):
        run_cli(monkeypatch)


def test_adaptive_threshold_option(monkeypatch, capsys, tmp_path, two_cell_slide):
    path = tmp_path / "slide.png"
    cv2.imwrite(str(path), two_cell_slide)
    args = cli.build_argparser().parse_args(["--threshold", "adaptive", "--no_segment"])
    assert (args.threshold, args.no_segment) == ("adaptive", True)

    run_cli(monkeypatch, "--image", str(path), "--no_grid", "--threshold", "adaptive")
    assert "viability" in capsys.readouterr().out
