"""Built-in system exercise catalog.

Rows are inserted without an author by ``POST /api/exercises/seed`` and
``scripts/seed_exercises.py``; names already present are skipped.
"""

from typing import TypedDict


class CatalogExercise(TypedDict):
    name: str
    description: str
    muscle_group: str
    difficulty: str
    instructions: str


def _entry(name: str, description: str, muscle_group: str, difficulty: str, instructions: str) -> CatalogExercise:
    return CatalogExercise(
        name=name,
        description=description,
        muscle_group=muscle_group,
        difficulty=difficulty,
        instructions=instructions,
    )


SYSTEM_EXERCISES: list[CatalogExercise] = [
    # Chest
    _entry("Push-ups", "Classic bodyweight chest exercise", "chest", "beginner",
           "Start in plank position, lower body to ground, push back up"),
    _entry("Bench Press", "Barbell chest press on bench", "chest", "intermediate",
           "Lie on bench, grip bar, lower to chest, press up"),
    _entry("Incline Dumbbell Press", "Dumbbell press on inclined bench", "chest", "intermediate",
           "Set bench to 30-45 degrees, press dumbbells from chest level"),
    _entry("Chest Dips", "Bodyweight chest exercise on parallel bars", "chest", "intermediate",
           "Support body on bars, lower down, push back up"),
    # Back
    _entry("Pull-ups", "Upper body pulling exercise", "back", "intermediate",
           "Hang from bar, pull body up until chin over bar"),
    _entry("Bent-over Rows", "Barbell rowing exercise", "back", "intermediate",
           "Bend over with bar, pull to lower chest, control down"),
    _entry("Lat Pulldowns", "Cable machine lat exercise", "back", "beginner",
           "Sit at machine, pull bar down to upper chest"),
    _entry("Deadlifts", "Full body compound lift", "back", "advanced",
           "Lift bar from ground to standing position, keep back straight"),
    # Legs
    _entry("Squats", "Fundamental leg exercise", "legs", "beginner",
           "Stand with feet shoulder-width, sit back and down, stand up"),
    _entry("Lunges", "Single leg strengthening exercise", "legs", "beginner",
           "Step forward, lower back knee, push back to start"),
    _entry("Leg Press", "Machine-based leg exercise", "legs", "beginner",
           "Sit on machine, place feet on platform, press weight"),
    _entry("Romanian Deadlifts", "Hip hinge movement for hamstrings", "legs", "intermediate",
           "Hold bar, hinge at hips, lower with straight legs"),
    # Shoulders
    _entry("Shoulder Press", "Overhead pressing movement", "shoulders", "beginner",
           "Press weight from shoulder level to overhead"),
    _entry("Lateral Raises", "Side deltoid isolation", "shoulders", "beginner",
           "Raise arms to sides until parallel to ground"),
    _entry("Face Pulls", "Rear deltoid and upper back exercise", "shoulders", "beginner",
           "Pull cable to face level, squeeze shoulder blades"),
    _entry("Pike Push-ups", "Bodyweight shoulder exercise", "shoulders", "intermediate",
           "Start in downward dog, lower head to ground, push up"),
    # Arms
    _entry("Bicep Curls", "Classic bicep isolation exercise", "arms", "beginner",
           "Curl weight from extended arm to shoulder level"),
    _entry("Tricep Dips", "Bodyweight tricep exercise", "arms", "beginner",
           "Support body on chair/bench, lower and raise body"),
    _entry("Hammer Curls", "Neutral grip bicep exercise", "arms", "beginner",
           "Curl with neutral grip, thumbs pointing up"),
    _entry("Overhead Tricep Extension", "Tricep isolation exercise", "arms", "intermediate",
           "Hold weight overhead, lower behind head, extend up"),
    # Core
    _entry("Plank", "Isometric core strengthening", "core", "beginner",
           "Hold body straight in push-up position"),
    _entry("Crunches", "Basic abdominal exercise", "core", "beginner",
           "Lie down, lift shoulders off ground toward knees"),
    _entry("Russian Twists", "Rotational core exercise", "core", "intermediate",
           "Sit with knees bent, rotate torso side to side"),
    _entry("Dead Bug", "Core stability exercise", "core", "beginner",
           "Lie on back, extend opposite arm and leg, alternate"),
    # Glutes
    _entry("Hip Thrusts", "Primary glute activation exercise", "glutes", "beginner",
           "Lie on back with knees bent, lift hips up by squeezing glutes"),
    _entry("Bulgarian Split Squats", "Single-leg glute and quad exercise", "glutes", "intermediate",
           "Rear foot elevated, lunge down on front leg, focus on glute activation"),
    _entry("Glute Bridges", "Basic glute strengthening", "glutes", "beginner",
           "Lie on back, lift hips by squeezing glutes, hold briefly"),
    _entry("Curtsy Lunges", "Lateral glute activation", "glutes", "intermediate",
           "Step one leg back and across behind the other, lunge down"),
    _entry("Clamshells", "Glute medius strengthening", "glutes", "beginner",
           "Lie on side, knees bent, lift top knee while keeping feet together"),
    # Full body
    _entry("Burpees", "High-intensity full body exercise", "full body", "intermediate",
           "Squat down, jump back to plank, do push-up, jump feet to hands, jump up"),
    _entry("Mountain Climbers", "Cardio and core full body exercise", "full body", "intermediate",
           "Plank position, alternate bringing knees to chest rapidly"),
    _entry("Thrusters", "Squat to overhead press combination", "full body", "intermediate",
           "Hold weights, squat down, stand and press weights overhead"),
    _entry("Turkish Get-ups", "Complex full body movement", "full body", "advanced",
           "Lie down with weight, get to standing position in controlled steps"),
    _entry("Bear Crawls", "Full body stability and strength", "full body", "intermediate",
           "Crawl forward on hands and feet, keeping knees slightly off ground"),
    _entry("Man Makers", "Burpee variation with weights", "full body", "advanced",
           "Burpee with dumbbells, add row at bottom and overhead press at top"),
]
