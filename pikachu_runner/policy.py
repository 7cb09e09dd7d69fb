from pikachu_runner.simulation import GROUND_Y, GRAVITY, JUMP_POWER, PLAYER_HEIGHT, OBSTACLE_Y


def jump_lead_frames():
    """Frames from take-off to the middle of the window where the player's
    feet are above the tree top."""
    clear = []
    y, vy, n = GROUND_Y, JUMP_POWER, 0
    while True:
        vy += GRAVITY
        y += vy
        n += 1
        if y >= GROUND_Y:
            break
        if y + PLAYER_HEIGHT <= OBSTACLE_Y:
            clear.append(n)
    return (clear[0] + clear[-1]) / 2.0


JUMP_LEAD_FRAMES = jump_lead_frames()


def policy(env):
    # Strategy: the tree's centre should pass the player's centre at the top of
    # the arc. Jump once the tree is that many frames away at its current speed.
    state = env.state
    player, tree = state.player, state.obstacle

    if state.terminal:
        return [0, 1, 0]  # Space restarts
    if not player.can_jump:
        return [0, 0, 0]

    units_per_frame = abs(tree.dx) * state.speed
    gap = (tree.x + tree.width / 2.0) - (player.x + player.width / 2.0)
    if gap > 0 and gap / units_per_frame <= JUMP_LEAD_FRAMES:
        return [0, 1, 0]
    return [0, 0, 0]
