"""HTTP-level tests for the leveling routes."""

from __future__ import annotations

import json
import unittest

from fastapi.testclient import TestClient

from surface_leveler.api.app import app
from surface_leveler.core.state import app_state
from surface_leveler.gcode.transformer import PROVENANCE_MARKER

_POINTS = [
    {"x": 0.0, "y": 0.0},
    {"x": 10.0, "y": 0.0},
    {"x": 10.0, "y": 10.0},
    {"x": 0.0, "y": 10.0},
]


class ApiTests(unittest.TestCase):
    """Exercise the routers through FastAPI's test client."""

    def setUp(self) -> None:
        app_state.reset()
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app_state.reset()

    def _build(self, z_values=(-0.5, -0.25, 0.0, 0.25)) -> dict:
        response = self.client.post(
            "/heightmap/build", json={"points": _POINTS, "zValues": list(z_values)}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.json(), {"status": "ok", "map": False})

    def test_grid_preview(self) -> None:
        response = self.client.post(
            "/heightmap/grid",
            json={
                "bounds": {"minX": 0, "maxX": 20, "minY": 0, "maxY": 10},
                "config": {"gridSpacing": 10},
            },
        )
        payload = response.json()

        self.assertEqual(payload["count"], 6)
        self.assertEqual(payload["points"][3], {"x": 20.0, "y": 10.0})

    def test_build_normalizes_and_stores(self) -> None:
        payload = self._build()

        self.assertEqual(payload["status"], "Valid (2x2, 4 points)")
        self.assertEqual([p["z"] for p in payload["map"]["points"]], [0.0, 0.25, 0.5, 0.75])
        self.assertEqual(self.client.get("/heightmap").json()["status"], "Valid (2x2, 4 points)")

    def test_build_rejects_mismatched_lengths(self) -> None:
        response = self.client.post(
            "/heightmap/build", json={"points": _POINTS, "zValues": [0.0, 1.0]}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(app_state.read().height_map)

    def test_validate_active_map(self) -> None:
        self.assertEqual(self.client.post("/heightmap/validate").json()["valid"], False)
        self._build()
        self.assertEqual(self.client.post("/heightmap/validate").json(), {"valid": True})

    def test_export_and_load_round_trip(self) -> None:
        self._build()
        exported = self.client.get("/heightmap/export").json()
        self.assertTrue(exported["filename"].endswith(".gshmap"))

        self.client.delete("/heightmap")
        self.assertEqual(self.client.get("/heightmap").json()["status"], "Empty")

        response = self.client.post("/heightmap/load", json={"document": exported["document"]})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(len(response.json()["map"]["points"]), 4)

    def test_malformed_load_keeps_current_map(self) -> None:
        self._build()
        before = app_state.read().height_map

        response = self.client.post("/heightmap/load", json={"document": "{not json"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(app_state.read().height_map, before)

        too_small = json.dumps(
            {
                "bounds": {"minX": 0, "maxX": 1, "minY": 0, "maxY": 1},
                "resolution": {"x": 1, "y": 1},
                "points": [{"x": 0, "y": 0, "z": 0}],
            }
        )
        response = self.client.post("/heightmap/load", json={"document": too_small})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(app_state.read().height_map, before)

    def test_load_falls_back_to_sampled_grid_for_bad_resolution(self) -> None:
        document = json.dumps(
            {
                "bounds": {"minX": 0, "maxX": 20, "minY": 0, "maxY": 10},
                "resolution": {"x": -3, "y": 1},
                "points": [
                    {"x": 0, "y": 0, "z": 0},
                    {"x": 10, "y": 0, "z": 0},
                    {"x": 20, "y": 0, "z": 0},
                    {"x": 0, "y": 10, "z": 0},
                    {"x": 10, "y": 10, "z": 0},
                    {"x": 20, "y": 10, "z": 0},
                ],
            }
        )
        response = self.client.post("/heightmap/load", json={"document": document})
        self.assertEqual(response.status_code, 200, response.text)

        config = app_state.read().config
        self.assertEqual((config.point_count_x, config.point_count_y), (3, 2))
        self.assertEqual(config.grid_spacing, 10.0)

        grid = self.client.post(
            "/heightmap/grid", json={"bounds": {"minX": 0, "maxX": 20, "minY": 0, "maxY": 10}}
        )
        self.assertEqual(grid.json()["count"], 6)

    def test_update_config(self) -> None:
        response = self.client.put("/heightmap/config", json={"segmentLength": 2.5})
        self.assertEqual(response.json()["segmentLength"], 2.5)
        self.assertEqual(app_state.read().config.segment_length, 2.5)

        invalid = self.client.put("/heightmap/config", json={"segmentLength": 0})
        self.assertEqual(invalid.status_code, 422)

    def test_transform_requires_map(self) -> None:
        response = self.client.post("/gcode/transform", json={"program": "G1 X1 Y1"})
        self.assertEqual(response.status_code, 404)

    def test_transform_and_bounds(self) -> None:
        self._build()
        response = self.client.post(
            "/gcode/transform",
            json={"program": "G0 X5 Y5\nG1 X20 Y5 F200", "segmentLength": 10},
        )
        payload = response.json()
        lines = payload["rewritten_program"].split("\n")

        self.assertEqual(lines[0], PROVENANCE_MARKER)
        self.assertEqual(len(payload["warnings"]), 1)
        self.assertEqual(len(lines), 4 + 1 + 2)

        report = self.client.post("/gcode/bounds", json={"program": "G0 X5 Y5\nG1 X20 Y5"}).json()
        self.assertFalse(report["valid"])
        self.assertEqual(report["gcode_max_x"], 20.0)

    def test_transform_refuses_adjusted_program(self) -> None:
        self._build()
        adjusted = self.client.post("/gcode/transform", json={"program": "G1 X5 Y5"}).json()

        response = self.client.post(
            "/gcode/transform", json={"program": adjusted["rewritten_program"]}
        )
        self.assertEqual(response.status_code, 409)


if __name__ == "__main__":
    unittest.main()
