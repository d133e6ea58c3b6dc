import random
import unittest
from unittest import mock

from timetable_ga.domains import build_domain_snapshot, sessions_for_hours
from timetable_ga.errors import ConfigError, SnapshotError
from timetable_ga.evaluation import calculate_fitness, count_conflicts, evaluate
from timetable_ga.initial_population import build_initial_population, build_random_individual
from timetable_ga.model import Assignment, ClassGroup, Individual, Room, Subject, Teacher, TimeSlot
from timetable_ga.operators import (
    class_block_crossover,
    group_by_class,
    mutate,
    roulette_selection,
    select_parent,
    tournament_selection,
    tournament_size_for,
)


def make_snapshot(teachers=None, classes=None, subjects=None, rooms=None, slots=None,
                  teacher_subjects=None, class_subjects=None):
    return build_domain_snapshot(
        teachers=teachers or [Teacher(1, "T1")],
        classes=classes or [ClassGroup(1, "C1", "IPA", 30)],
        subjects=subjects or [Subject(1, "Matematika", "MTK", 2)],
        rooms=rooms or [Room(1, "R1", "theory", 30)],
        time_slots=slots or [TimeSlot(1, "Senin", "07:00", "08:30")],
        teacher_subjects=teacher_subjects if teacher_subjects is not None else [(1, 1)],
        class_subjects=class_subjects if class_subjects is not None else [(1, 1)],
    )


def gene(class_id=1, subject_id=1, teacher_id=1, room_id=1, slot_id=1):
    return Assignment(class_id, subject_id, teacher_id, room_id, slot_id)


class DomainTests(unittest.TestCase):
    def test_sessions_round_up(self):
        self.assertEqual(sessions_for_hours(2), 1)
        self.assertEqual(sessions_for_hours(3), 2)
        self.assertEqual(sessions_for_hours(4), 2)
        self.assertEqual(sessions_for_hours(0), 0)

    def test_eligible_rooms_filter_by_type_and_department(self):
        snap = make_snapshot(
            classes=[ClassGroup(1, "C1", "IPA"), ClassGroup(2, "C2", "IPS")],
            subjects=[Subject(1, "Fisika", "FIS", 2, requires_practical=True)],
            rooms=[
                Room(1, "R1", "theory", 30),
                Room(2, "Lab IPA", "practical", 30, ("IPA",)),
                Room(3, "Lab umum", "practical", 30),
            ],
            class_subjects=[(1, 1), (2, 1)],
        )
        self.assertEqual({r.id for r in snap.eligible_rooms(1, 1)}, {2, 3})
        self.assertEqual({r.id for r in snap.eligible_rooms(1, 2)}, {3})

    def test_eligible_rooms_fall_back_when_department_filter_is_empty(self):
        snap = make_snapshot(
            classes=[ClassGroup(1, "C1", "IPS")],
            rooms=[Room(1, "R1", "theory", 30, ("IPA",)), Room(2, "Lab", "practical", 30)],
        )
        self.assertEqual([r.id for r in snap.eligible_rooms(1, 1)], [1])

    def test_unknown_id_is_fatal(self):
        snap = make_snapshot()
        with self.assertRaises(SnapshotError):
            snap.validate_assignment(gene(teacher_id=99))

    def test_data_gaps_reported(self):
        snap = make_snapshot(
            subjects=[Subject(1, "A", "A", 2), Subject(2, "B", "B", 2)],
            class_subjects=[(1, 1), (1, 2), (1, 7)],
        )
        reasons = {(g.subject_id, g.reason) for g in snap.find_data_gaps()}
        self.assertIn((2, "sin docentes elegibles"), reasons)
        self.assertIn((7, "materia inexistente"), reasons)
        self.assertNotIn(1, {sid for sid, _ in reasons})


class InitialPopulationTests(unittest.TestCase):
    def test_scenario_single_session_is_perfect(self):
        snap = make_snapshot()
        pop = build_initial_population(snap, 5)
        self.assertEqual(len(pop), 5)
        for ind in pop:
            self.assertEqual(len(ind.genes), 1)
            self.assertEqual(calculate_fitness(ind, snap), 1.0)

    def test_session_count_per_class_subject(self):
        random.seed(3)
        snap = make_snapshot(
            classes=[ClassGroup(1, "C1", "IPA"), ClassGroup(2, "C2", "IPA")],
            subjects=[Subject(1, "A", "A", 4), Subject(2, "B", "B", 3)],
            teacher_subjects=[(1, 1), (1, 2)],
            class_subjects=[(1, 1), (1, 2), (2, 2)],
        )
        ind = build_random_individual(snap)
        counts = {}
        for g in ind.genes:
            counts[(g.class_id, g.subject_id)] = counts.get((g.class_id, g.subject_id), 0) + 1
        self.assertEqual(counts, {(1, 1): 2, (1, 2): 2, (2, 2): 2})

    def test_subject_without_teacher_is_skipped(self):
        snap = make_snapshot(
            subjects=[Subject(1, "A", "A", 2), Subject(2, "B", "B", 4)],
            class_subjects=[(1, 1), (1, 2)],
        )
        ind = build_random_individual(snap)
        self.assertEqual([g.subject_id for g in ind.genes], [1])


class EvaluationTests(unittest.TestCase):
    def test_empty_individual(self):
        snap = make_snapshot()
        ind = Individual([])
        self.assertEqual(calculate_fitness(ind, snap), 1.0)
        self.assertEqual(count_conflicts(ind, snap), 0)

    def test_teacher_double_booking(self):
        snap = make_snapshot(
            classes=[ClassGroup(1, "C1", "IPA"), ClassGroup(2, "C2", "IPA")],
            rooms=[Room(1, "R1", "theory", 30), Room(2, "R2", "theory", 30)],
            class_subjects=[(1, 1), (2, 1)],
        )
        ind = Individual([gene(class_id=1, room_id=1), gene(class_id=2, room_id=2)])
        res = evaluate(ind, snap)
        self.assertEqual(res.teacher_clashes, 1)
        self.assertEqual(res.class_clashes, 0)
        self.assertEqual(res.room_clashes, 0)
        self.assertAlmostEqual(ind.fitness, 0.8)
        self.assertEqual(ind.conflicts, 1)

    def test_overtime_penalty(self):
        snap = make_snapshot(
            teachers=[Teacher(1, "T1", max_hours_per_week=2)],
            slots=[TimeSlot(i, "Senin", f"0{6 + i}:00", "") for i in (1, 2, 3)],
        )
        ind = Individual([gene(slot_id=1), gene(slot_id=2), gene(slot_id=3)])
        res = evaluate(ind, snap)
        self.assertEqual(res.teacher_hours, {1: 6})
        self.assertEqual(res.overtime_hours, {1: 4})
        self.assertAlmostEqual(res.fitness, 0.8)
        # la carga horaria no cuenta como conflicto
        self.assertEqual(res.conflicts, 0)

    def test_per_gene_penalties(self):
        snap = make_snapshot(
            teachers=[Teacher(1, "T1"), Teacher(2, "T2", unavailable_days=("Senin",),
                                                unavailable_time_slots=("Senin-07:00",))],
            classes=[ClassGroup(1, "C1", "IPA", 40)],
            subjects=[Subject(1, "Fisika", "FIS", 2, requires_practical=True)],
        )
        ind = Individual([gene(teacher_id=2)])
        res = evaluate(ind, snap)
        self.assertEqual(
            (res.ineligible_teacher, res.wrong_room_type, res.room_too_small,
             res.unavailable_day, res.unavailable_time_slot),
            (1, 1, 1, 1, 1),
        )
        self.assertAlmostEqual(res.fitness, 0.4)
        self.assertEqual(res.conflicts, 4)
        self.assertEqual(res.violations, [])

        explained = evaluate(Individual([gene(teacher_id=2)]), snap, explain=True)
        self.assertEqual(len(explained.violations), 5)
        self.assertAlmostEqual(explained.fitness, res.fitness)

    def test_preference_bonus(self):
        snap = make_snapshot(
            teachers=[Teacher(1, "T1", preferred_days=("Senin",),
                              preferred_time_slots=("Senin-07:00",))],
            classes=[ClassGroup(1, "C1", "IPA", 40)],
        )
        # -0.05 por aula pequeña, +0.04 por preferencias
        self.assertAlmostEqual(calculate_fitness(Individual([gene()]), snap), 0.99)

    def test_fitness_clamped_to_zero(self):
        snap = make_snapshot()
        ind = Individual([gene() for _ in range(7)])
        res = evaluate(ind, snap)
        self.assertEqual(res.fitness, 0.0)
        self.assertEqual(res.double_bookings, 18)
        self.assertEqual(res.conflicts, 18)

    def test_count_conflicts_is_stable(self):
        snap = make_snapshot()
        ind = Individual([gene(), gene(teacher_id=1, room_id=1)])
        self.assertEqual(count_conflicts(ind, snap), count_conflicts(ind, snap))
        self.assertEqual(count_conflicts(ind, snap), 3)

    def test_unknown_id_raises(self):
        snap = make_snapshot()
        with self.assertRaises(SnapshotError):
            calculate_fitness(Individual([gene(room_id=42)]), snap)


class OperatorTests(unittest.TestCase):
    def setUp(self):
        random.seed(11)
        self.snap = make_snapshot(
            teachers=[Teacher(1, "T1"), Teacher(2, "T2"), Teacher(3, "T3")],
            classes=[ClassGroup(c, f"C{c}", "IPA") for c in (1, 2, 3)],
            subjects=[Subject(1, "A", "A", 4), Subject(2, "Lab", "L", 2, True)],
            rooms=[Room(1, "R1", "theory", 30), Room(2, "R2", "theory", 30),
                   Room(3, "Lab", "practical", 30)],
            slots=[TimeSlot(i, "Senin", f"{i:02d}:00", "") for i in range(1, 6)],
            teacher_subjects=[(1, 1), (2, 1), (3, 2)],
            class_subjects=[(1, 1), (1, 2), (2, 1), (3, 2)],
        )

    def test_crossover_copies_whole_class_blocks(self):
        p1 = Individual([gene(1, 1, 1, 1, 1), gene(1, 1, 1, 1, 2), gene(2, 1, 2, 2, 3)])
        p2 = Individual([gene(1, 1, 2, 2, 4), gene(3, 2, 3, 3, 5), gene(3, 2, 3, 3, 1)])
        b1, b2 = group_by_class(p1), group_by_class(p2)
        for _ in range(30):
            child = class_block_crossover(p1, p2)
            blocks = group_by_class(child)
            for cid in set(b1) | set(b2):
                got = blocks.get(cid, [])
                self.assertIn(got, (b1.get(cid, []), b2.get(cid, [])))

    def test_crossover_keeps_session_counts_for_complete_parents(self):
        p1 = build_random_individual(self.snap)
        p2 = build_random_individual(self.snap)
        child = class_block_crossover(p1, p2)
        self.assertEqual(len(child.genes), len(p1.genes))

    def test_mutation_changes_one_field_with_valid_values(self):
        ind = build_random_individual(self.snap)
        before = list(ind.genes)
        mutated = mutate(ind, self.snap, gene_rate=1.0)
        self.assertEqual(mutated, len(before))
        for old, new in zip(before, ind.genes):
            changed = [f for f in ("class_id", "subject_id", "teacher_id", "room_id", "time_slot_id")
                       if getattr(old, f) != getattr(new, f)]
            self.assertLessEqual(len(changed), 1)
            self.assertNotIn("class_id", changed)
            self.assertNotIn("subject_id", changed)
            self.assertIn(new.teacher_id, self.snap.eligible_teachers(new.subject_id))
            self.assertIn(new.room_id, [r.id for r in self.snap.eligible_rooms(new.subject_id, new.class_id)])

    def test_mutation_rate_zero_keeps_genes(self):
        ind = build_random_individual(self.snap)
        before = list(ind.genes)
        self.assertEqual(mutate(ind, self.snap, gene_rate=0.0), 0)
        self.assertEqual(ind.genes, before)

    def test_roulette_all_zero_returns_first(self):
        pop = [Individual([], fitness=0.0) for _ in range(4)]
        self.assertIs(roulette_selection(pop), pop[0])

    def test_roulette_follows_accumulated_fitness(self):
        pop = [Individual([], fitness=f) for f in (0.2, 0.0, 0.8)]
        with mock.patch("timetable_ga.operators.random.random", return_value=0.5):
            self.assertIs(roulette_selection(pop), pop[2])
        with mock.patch("timetable_ga.operators.random.random", return_value=0.1):
            self.assertIs(roulette_selection(pop), pop[0])

    def test_tournament_size(self):
        self.assertEqual(tournament_size_for(5), 2)
        self.assertEqual(tournament_size_for(25), 3)
        self.assertEqual(tournament_size_for(100), 10)

    def test_tournament_returns_best_of_sample(self):
        best = Individual([], fitness=0.9)
        pop = [Individual([], fitness=0.1), best]
        self.assertIs(tournament_selection(pop, size=64), best)

    def test_unknown_selection_method(self):
        with self.assertRaises(ConfigError):
            select_parent([Individual([])], "rank")


if __name__ == "__main__":
    unittest.main()
