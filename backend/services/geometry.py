"""
Calculs géométriques sur des objets GeoJSON (centroïde, emprise)

Mêmes conventions que turf: le centroïde est la moyenne de tous les sommets,
l'emprise est [minX, minY, maxX, maxY].
Toute géométrie invalide lève une ValueError.
"""

from typing import List, Dict, Any

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import GeometryCollection, MultiPoint, shape
from shapely.geometry.base import BaseGeometry


def point(coordinates: List[float]) -> Dict[str, Any]:
    return {"type": "Point", "coordinates": [coordinates[0], coordinates[1]]}


def feature_collection(geometries: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [{"type": "Feature", "properties": {}, "geometry": g} for g in geometries],
    }


def to_shape(geojson: Dict[str, Any]) -> BaseGeometry:
    """GeoJSON (géométrie, feature ou collection) → géométrie shapely"""
    if not isinstance(geojson, dict) or "type" not in geojson:
        raise ValueError(f"Géométrie invalide: {geojson!r}")

    geom_type = geojson["type"]
    if geom_type == "FeatureCollection":
        return GeometryCollection([to_shape(f) for f in geojson.get("features", [])])
    if geom_type == "Feature":
        return to_shape(geojson.get("geometry"))
    if geom_type != "GeometryCollection" and geojson.get("coordinates") is None:
        raise ValueError(f"Géométrie {geom_type} sans coordonnées")

    try:
        return shape(geojson)
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError) as e:
        raise ValueError(f"Géométrie {geom_type} invalide: {str(e)}") from e


def _vertices(geojson: Dict[str, Any]):
    coords = shapely.get_coordinates(to_shape(geojson))
    if len(coords) == 0:
        raise ValueError("Géométrie vide")
    return coords


def centroid(geojson: Dict[str, Any]) -> Dict[str, Any]:
    """Centroïde (moyenne des sommets) d'une géométrie, feature ou collection"""
    center = MultiPoint(_vertices(geojson)).centroid
    return point([center.x, center.y])


def bbox(geojson: Dict[str, Any]) -> List[float]:
    """Emprise [minX, minY, maxX, maxY]"""
    return list(MultiPoint(_vertices(geojson)).bounds)
