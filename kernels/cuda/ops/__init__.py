"""
CUDA elementwise kernel set (source-only).

- `elementwise.cu`: CUDA kernel source (what users should edit/read)
- `elementwise.py`: IO spec per kernel + path to the `.cu` file
"""
