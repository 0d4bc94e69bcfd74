"""TCP proxying: the listening proxy and stream writer helpers."""