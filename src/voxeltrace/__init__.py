"""Voxel ray marcher built on Taichi.

This package renders scenes made of axis-aligned unit voxels by marching rays
through a sparse voxel octree and shading the first surface hit with a
recursive local-illumination model:
- Empty-space skipping through a sparse voxel octree
- Importance-pruned light tree for direct lighting queries
- Mirror reflections blended by surface roughness
- Row-band parallel rendering into an 8-bit RGB raster

Subpackages:
    core: Vector helpers, tracer settings, shading and the tile renderer
    geometry: Voxel points and cube bounds queries
    scene: Voxel octree, light tree, ray marcher and scene construction
    materials: Rough and emissive voxel materials
    camera: Fixed pinhole camera producing primary rays
    preview: Tone mapping, PNG export and preview display
"""

__version__ = "0.1.0"
