"""Prompt text and tool schema for the maze discovery protocol."""

from maze_solver.core.maze import Maze

GET_NEIGHBOURS_TOOL_NAME = "GetNeighbours"

GET_NEIGHBOURS_DESCRIPTION = (
    "Get the status of all 8 neighbouring cells around a given position. "
    "Returns status for each direction: N, NE, E, SE, S, SW, W, NW. "
    "Status can be 'path', 'wall', 'exit', or 'out_of_bounds'. "
    "Use this tool to explore the maze and find the path to the exit."
)

NO_DESCRIPTION = "N/A"

ADJACENCY_CLAUSE = """

CRITICAL CONSTRAINT: You can ONLY query cells that are adjacent (including diagonally) to cells you have already discovered.
Your first query must be the entry position. After that, you can only query cells that are neighbors of any previously queried cell.
Querying a non-adjacent cell will result in an error. Plan your exploration path carefully - you cannot jump to distant cells."""

SYSTEM_PROMPT_TEMPLATE = """You are a maze-solving AI. Your task is to find a path from the entry point to the exit.

You have one tool available: GetNeighbours(x, y)
This tool returns the status of all 8 cells around the given position.

Status values:
- "path": A walkable cell you can move to
- "wall": An impassable cell
- "exit": The goal - the maze exit! When you see this, you've found the way out!
- "out_of_bounds": Outside the maze boundaries

Strategy:
1. Start from the entry position provided
2. Use GetNeighbours to explore reachable cells
3. Keep track of visited cells to avoid revisiting them
4. When you find a neighbour with status "exit", you've solved the maze!
5. Report the path you found from entry to exit

Maze dimensions: {width} x {height}
Entry position: ({entry_x}, {entry_y})
Exit position: ({exit_x}, {exit_y})

Important: Only move to cells with status "path" or "exit". Avoid walls and out of bounds.
Call GetNeighbours repeatedly to explore the maze systematically. A good strategy is depth-first search or similar.
When you find the exit, respond with the complete path as a list of coordinates."""

# Roughly 1.5-2k tokens per tool result, used to fill the context window quickly.
VERBOSE_CELL_DESCRIPTION_TEMPLATE = """This cell at coordinates ({x}, {y}) represents a specific location within the maze grid structure.
The maze exploration system has successfully analyzed this position and gathered comprehensive data about its spatial relationships.

DETAILED SPATIAL ANALYSIS REPORT:
================================
The current cell occupies a unique position within the Cartesian coordinate system of the maze.
The X-coordinate value of {x} indicates the horizontal displacement from the origin point (0,0) located at the top-left corner.
The Y-coordinate value of {y} indicates the vertical displacement, with increasing values moving downward in the grid.

NAVIGATION CONTEXT:
==================
When navigating through a maze, understanding the relationship between adjacent cells is crucial for pathfinding algorithms.
The eight possible directions of movement (N, NE, E, SE, S, SW, W, NW) provide comprehensive coverage of all potential paths.
Each neighboring cell has been evaluated to determine its accessibility status.

PATHFINDING CONSIDERATIONS:
==========================
Effective maze navigation requires systematic exploration of reachable cells while avoiding walls and boundaries.
The depth-first search (DFS) algorithm is one approach that explores as far as possible along each branch before backtracking.
Breadth-first search (BFS) alternatively explores all neighbors at the current depth before moving to nodes at the next depth level.
A* search combines the benefits of both approaches by using heuristics to guide exploration toward the goal.

CELL CLASSIFICATION INFORMATION:
===============================
Cells in this maze can be classified into several categories based on their properties:
1. PATH cells - These are traversable locations that form the valid routes through the maze.
2. WALL cells - These are impassable obstacles that block movement and define the maze structure.
3. ENTRY cells - The designated starting point for maze navigation, typically located at the maze perimeter.
4. EXIT cells - The goal destination that must be reached to successfully solve the maze.
5. OUT_OF_BOUNDS - Positions outside the valid maze dimensions, representing the maze boundary.

EXPLORATION STRATEGY RECOMMENDATIONS:
====================================
To efficiently solve this maze, consider maintaining a record of visited cells to avoid redundant exploration.
Track the path taken from the entry point to enable backtracking when dead ends are encountered.
Prioritize exploration of cells that appear to lead toward the exit based on their relative position.
The exit is typically located at the opposite corner or edge from the entry point.

CURRENT POSITION METADATA:
=========================
Position hash identifier: CELL_{x}_{y}_EXPLORED
Exploration timestamp: Current iteration
Cell analysis complete: True
Neighboring cells evaluated: 8 directions analyzed
Valid movement options: See neighbours object for details

ADDITIONAL DIAGNOSTIC INFORMATION:
=================================
This verbose output is intentionally detailed to simulate tool responses that consume significant context window space.
In real-world applications, tool outputs may contain extensive metadata, debugging information, or rich descriptions.
The maze solver must account for context window limitations when processing many tool calls in sequence.
Context overflow occurs when the cumulative token count exceeds the model's maximum context window size.
Proper handling of context overflow includes detecting the condition and implementing appropriate recovery strategies.

END OF CELL ANALYSIS REPORT FOR POSITION ({x}, {y})
==================================================="""


def build_system_prompt(maze: Maze, force_adjacent_discovery: bool) -> str:
    """System prompt describing the task, the status vocabulary and the maze."""
    prompt = SYSTEM_PROMPT_TEMPLATE.format(
        width=maze.width,
        height=maze.height,
        entry_x=maze.entry.x,
        entry_y=maze.entry.y,
        exit_x=maze.exit.x,
        exit_y=maze.exit.y,
    )
    if force_adjacent_discovery:
        prompt += ADJACENCY_CLAUSE
    return prompt


def build_seed_prompt(maze: Maze) -> str:
    """First user turn of every solve session."""
    return (
        f"Please solve the maze. Start from the entry at position ({maze.entry.x}, {maze.entry.y}). "
        f"Use {GET_NEIGHBOURS_TOOL_NAME} to explore cells and find the exit. "
        "When you find the exit, tell me the path you found."
    )


def build_cell_description(x: int, y: int, verbose: bool) -> str:
    """Filler description attached to every successful probe."""
    if not verbose:
        return NO_DESCRIPTION
    return VERBOSE_CELL_DESCRIPTION_TEMPLATE.format(x=x, y=y)


def build_get_neighbours_tool() -> dict:
    """Function-calling schema of the single probe tool."""
    return {
        "type": "function",
        "function": {
            "name": GET_NEIGHBOURS_TOOL_NAME,
            "description": GET_NEIGHBOURS_DESCRIPTION,
            "parameters": {
                "type": "object",
                "properties": {
                    "x": {
                        "type": "integer",
                        "description": "X coordinate (column) of the cell to check neighbours for",
                    },
                    "y": {
                        "type": "integer",
                        "description": "Y coordinate (row) of the cell to check neighbours for",
                    },
                },
                "required": ["x", "y"],
            },
        },
    }
