# Модуль отображения карты: состояние вида, анимация, сборка кадра
from render.animation import AnimationController
from render.compositor import CompositeFrame, ViewportCompositor
from render.viewport import MapViewport

__all__ = [
    'AnimationController',
    'CompositeFrame',
    'MapViewport',
    'ViewportCompositor',
]
