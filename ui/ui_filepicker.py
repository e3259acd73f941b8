import os

from ui_images import is_image_path


def normalize_file_picker_result(result) -> tuple[list[str], list[str]]:
    """
    Normalize Flet FilePicker results across versions.

    Returns:
      (paths, rejected)

    - `paths`: readable image paths, de-duplicated in pick order.
    - `rejected`: display names of items that are not images or have no usable path.
    """
    file_items = getattr(result, "files", None) or []
    paths: list[str] = []
    rejected: list[str] = []

    def consider(path: str, label: str | None = None) -> None:
        if is_image_path(path):
            paths.append(path)
        else:
            rejected.append(label or os.path.basename(path) or path)

    if file_items:
        for item in file_items:
            if isinstance(item, str):
                if item:
                    consider(item)
                continue

            path = getattr(item, "path", None)
            if isinstance(path, str) and path:
                consider(path)
                continue

            name = getattr(item, "name", None)
            if isinstance(name, str) and name and os.path.exists(name):
                consider(name)
                continue

            rejected.append(name if isinstance(name, str) and name else "Unknown file")
    else:
        path = getattr(result, "path", None)
        if isinstance(path, str) and path:
            consider(path)

    seen: set[str] = set()
    uniq_paths: list[str] = []
    for p in paths:
        if p in seen:
            continue
        seen.add(p)
        uniq_paths.append(p)

    return uniq_paths, rejected
