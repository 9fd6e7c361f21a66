"""
Sales app: point of sale, customers, voids, returns and the cash drawer.
"""
