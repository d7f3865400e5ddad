# hotcontent/services/__init__.py
"""
Discovery, ranking, safety and learning services.
"""
